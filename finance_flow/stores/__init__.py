# finance_flow/stores/__init__.py
from finance_flow.utils import lookup_plugin


def get_store(name, config):
    """Build the store registered under ``name`` in ``store_modules``."""
    return lookup_plugin(config, 'store_modules', name).from_config(config)

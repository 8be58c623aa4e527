# finance_flow/outputs/__init__.py
from finance_flow.utils import lookup_plugin


def get_output(name, config):
    return lookup_plugin(config, 'output_modules', name)(config)

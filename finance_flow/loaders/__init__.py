# finance_flow/loaders/__init__.py
from finance_flow.core.taxonomy import taxonomy_from_config
from finance_flow.utils import lookup_plugin


def get_loader(name, config, **options):
    cls = lookup_plugin(config, 'loader_modules', name)
    return cls(taxonomy=taxonomy_from_config(config.get('taxonomy')), **options)

"""adt-shim test suite.

Test organization:
- test_params.py: legacy call capture and the parameter builder
- test_rules.py: rewrite steps, precondition checks, rule verification
- test_catalog.py: YAML catalog loading and the bundled catalog
- test_facade.py: the end-to-end legacy call contract
- test_errors.py / test_api.py: error taxonomy, new-API adapters, results
- test_deprecation.py / test_observability.py: notices and logging
- test_settings.py / test_env.py: configuration
- test_cli.py: the adt-shim command line
"""

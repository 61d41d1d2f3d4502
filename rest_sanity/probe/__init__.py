"""REST method-handling probe: test a live server for 405 / Allow compliance.

This package runs three phases against a live server: OPTIONS on a
read-only endpoint, unsupported methods on that endpoint, and a POST to an
index settings endpoint that only accepts PUT and GET.

Entry point: ``rest_sanity.probe.runner.run_probe()``
"""

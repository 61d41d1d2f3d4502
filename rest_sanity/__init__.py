"""rest-sanity: HTTP method-handling conformance probe for REST search servers.

Checks that a live server answers ``OPTIONS`` with a correct ``Allow`` header,
rejects unsupported methods with ``405 Method Not Allowed`` plus an ``Allow``
header and explanatory body, and routes ``POST /{index}/_settings`` to the
PUT/GET settings handler instead of silently accepting it.
"""

__version__ = "0.1.0"

"""Router modules; see :mod:`polly_server.api.routes.register`."""

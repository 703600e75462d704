"""Domain operations shared by the JSON API and the server-rendered pages.

Every function takes an open ``Session`` first, raises ``storefront.errors``
exceptions on bad input and leaves committing to the caller.
"""

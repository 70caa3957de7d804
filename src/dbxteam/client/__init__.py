"""HTTP client for the Dropbox API.

Provides :class:`DropboxClient`, a blocking client backed by
:class:`httpx.Client` with bearer auth, retry with exponential backoff and
error mapping to :mod:`dbxteam.exceptions`.

Example::

    from dbxteam.client import DropboxClient

    with DropboxClient() as client:
        data = client.post_json(url, {"limit": 100}, access_token)
"""

from dbxteam.client.api_client import DropboxClient

__all__ = ["DropboxClient"]

"""Client Static Files — serves the built single-page client in production.

Invariants:
    - Existing files are served as-is
    - Any other GET/HEAD path answers with index.html so client-side routes resolve
    - Other methods keep StaticFiles' own error (rendered by the error responder)
"""

from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

INDEX_FILE = "index.html"


class ClientStaticFiles(StaticFiles):

    def __init__(self, directory: str) -> None:
        super().__init__(directory=directory, html=True)

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except HTTPException as e:
            if e.status_code != 404 or scope["method"] not in ("GET", "HEAD"):
                raise
            return await super().get_response(INDEX_FILE, scope)

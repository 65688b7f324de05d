"""URLトークン認証ミドルウェア。"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

TOKEN_HEADER = "x-plumb-token"


class TokenAuthMiddleware(BaseHTTPMiddleware):
    """HTTPトランスポートへのリクエストにトークンを要求するミドルウェア。

    PLUMB_URL_TOKEN が設定されている場合、token クエリパラメータまたは
    X-Plumb-Token ヘッダーの一致を要求する。未設定なら全て通す。
    /health は検証しない。
    """

    SKIP_PATHS = {"/health"}

    def __init__(self, app: ASGIApp, url_token: str = "") -> None:
        super().__init__(app)
        self.url_token = url_token

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.url_token or request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        token = request.query_params.get("token") or request.headers.get(TOKEN_HEADER, "")
        if token != self.url_token:
            return JSONResponse(
                {
                    "error": "Unauthorized",
                    "message": "Invalid or missing token",
                    "hint": "Pass ?token=... or the X-Plumb-Token header",
                },
                status_code=401,
            )
        return await call_next(request)

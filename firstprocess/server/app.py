"""FastAPI application for the First Process server."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.routes.auth import auth_router
from firstprocess.server.routes.org_invitations import invitation_router
from firstprocess.server.routes.org_members import org_router


def register_exception_handlers(app: FastAPI) -> None:
    """Render every handled error as ``{"error": message}``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={'error': str(exc.detail)},
            headers=getattr(exc, 'headers', None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        errors = exc.errors()
        message = errors[0].get('msg', 'Invalid request') if errors else 'Invalid request'
        logger.info(
            'Rejected invalid request body',
            extra={'path': request.url.path, 'error': message},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={'error': message},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            'Unhandled error',
            extra={'path': request.url.path, 'method': request.method},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={'error': 'An unexpected error occurred'},
        )


def create_app() -> FastAPI:
    app = FastAPI(title='First Process', version='0.1.0')
    register_exception_handlers(app)

    app.include_router(auth_router, tags=['Auth'])
    app.include_router(invitation_router, tags=['Invitations'])
    app.include_router(org_router, tags=['Organization'])

    @app.get('/health', tags=['System'])
    async def health_check():
        return {'status': 'ok'}

    return app


app = create_app()


if __name__ == '__main__':
    import os

    import uvicorn

    uvicorn.run(app, host='0.0.0.0', port=int(os.getenv('PORT', '8000')))

"""Default controller serving the landing, privacy and error pages."""

from starlette.responses import Response

from app.domain import ErrorViewModel

from .base import Controller


class HomeController(Controller):
    """Controller addressed by the default route values."""

    def index(self) -> Response:
        return self.view(title="Home Page")

    def privacy(self) -> Response:
        return self.view(title="Privacy Policy")

    def error(self) -> Response:
        """Render the generic error page without exposing error details.

        Returns:
            Response: Error page response that must never be cached.
        """

        model = ErrorViewModel(request_id=getattr(self.request.state, "request_id", None))
        return self.view(
            model=model,
            title="Error",
            headers={"Cache-Control": "no-store, no-cache", "Pragma": "no-cache"},
        )

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from slotkeeper.api.v0.availability import router as availability_router
from slotkeeper.api.v0.bookings import router as bookings_router
from slotkeeper.core.config import settings

class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in (
            "booking_id",
            "new_booking_id",
            "event_type_id",
            "starts_at",
            "action",
            "state",
            "replayed",
            "reason",
        ):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)

app = FastAPI(title="Slotkeeper Booking Engine", version="1.0.0")

app.include_router(availability_router, prefix="/v0", tags=["availability"])
app.include_router(bookings_router, prefix="/v0", tags=["bookings"])


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request.") if errors else "Invalid request."
    return JSONResponse(status_code=400, content={"detail": message})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}

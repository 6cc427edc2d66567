"""Public placeholder page served to gated production traffic."""
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from vantera.config import settings

router = APIRouter()

_PAGE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta name="robots" content="noindex">
<title>{name} | Coming soon</title>
</head>
<body style="margin:0;min-height:100vh;display:flex;align-items:center;justify-content:center;background:#000;color:#fff;font-family:system-ui,sans-serif;text-align:center">
<main>
<h1>{name}</h1>
<p>Intelligence</p>
<p>Coming soon</p>
<p>Luxury real estate intelligence, rebuilt from zero.</p>
<small>&copy; {year} {name}</small>
</main>
</body>
</html>
"""


@router.get(settings.coming_soon_path, response_class=HTMLResponse, include_in_schema=False)
async def coming_soon():
    return HTMLResponse(_PAGE.format(name=settings.app_name, year=datetime.now(timezone.utc).year))

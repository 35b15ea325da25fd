"""Hello world app with live reload.

Run from this directory:
    pip install -e "../..[example]"
    python app.py

Then open http://localhost:8000 and edit public/style.css, public/script.js
or anything in views/.
"""

from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

import templatesreload

HERE = Path(__file__).parent

app = FastAPI()

templatesreload.setup(
    app,
    watch=[
        # A specific file
        {"path": HERE / "public" / "style.css"},
        {"path": HERE / "public" / "script.js"},
        # A directory, filtered by extension
        {"path": HERE / "views", "extensions": [".html"]},
    ],
)


@app.get("/")
async def index() -> FileResponse:
    return FileResponse(HERE / "views" / "hello-world.html")


app.mount("/", StaticFiles(directory=HERE / "public"), name="public")


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)

"""
Vercel Python entrypoint.

Vercel routes every /api/* request to this single function (see `vercel.json`),
which hands it to the FastAPI app. The landing page itself is static and served
by Vercel directly.
"""

from mangum import Mangum

from main import app  # FastAPI instance

# Lambda-style handler for runtimes (or local emulators) that prefer one.
handler = Mangum(app)

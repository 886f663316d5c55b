"""
Todo functions backend package.

The FastAPI app lives in `src.backend.main` (`app`, or `create_app()` for a
custom Settings instance). Functions are registered in `bindings`.
"""

"""HTTP API layer built on FastAPI.

- **main**: Application factory and lifecycle management
- **middleware**: Error handling, request context, request logging,
  security headers, CORS and rate limiting
- **routes**: Resource routers
- **schemas**: Pydantic request and response models
- **dto**: Shaping of entities into response records
- **utils**: orjson responses
"""

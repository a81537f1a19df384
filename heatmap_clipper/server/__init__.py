"""HTTP service: FastAPI app, request/response models, background job store."""

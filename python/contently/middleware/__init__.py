"""Custom middleware for the ContentlyAI API."""

from contently.middleware.cors import AppCORSMiddleware
from contently.middleware.request_id import RequestIDMiddleware

__all__ = ["AppCORSMiddleware", "RequestIDMiddleware"]

"""
SubText Backend — Middleware Package
======================================

Request → [Request ID] → [Access Logging] → [GZip] → [CORS] → Route Handler

Rate limiting is not middleware here: it is per authenticated user and is
applied inside the OCR route, after the bearer token is verified.
"""

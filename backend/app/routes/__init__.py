"""
SubText Backend — API Routes Package
======================================

Route Inventory:
    - health.py:         GET  /, /api, /health
    - auth.py:           POST /api/auth/{signup,login,logout,refresh}
                         GET  /api/auth/check-user
    - ocr.py:            POST /api/ocr
    - analysis.py:       POST /api/analyze, /api/extract
    - subscriptions.py:  GET  /api/subscription/status, /api/subscriptions/plans
                         POST /api/subscriptions/{create,cancel}
    - webhooks.py:       POST /api/webhooks/paypal

Routes stay thin: read the request, call a service from the container,
shape the response. Errors propagate to the global handlers in main.py.
"""

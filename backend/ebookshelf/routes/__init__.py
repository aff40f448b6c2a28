"""
Ebookshelf Backend: API Routes Package
========================================

Route Inventory:
    - auth.py:    /auth/signup, /auth/login, /auth/change-password
    - upload.py:  POST /upload-book
    - books.py:   /books and the per-book progress, vocab and notes routes
    - health.py:  GET /health

Routes stay thin: extract the request data, call a service or repository,
shape the response. Rules live below this layer.
"""

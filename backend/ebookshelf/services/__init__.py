"""
Ebookshelf Backend: Services Layer
====================================

What:  Business logic between the HTTP routes and the repositories.

Service Inventory:
    - BlobStorage (abstract) / CloudinaryStorage: remote PDF storage
    - TokenService: issues and verifies bearer tokens
    - AuthService: signup, login, change-password
    - UploadService: PDF upload pipeline
    - pdf_service.count_pages: page count via PyMuPDF
"""

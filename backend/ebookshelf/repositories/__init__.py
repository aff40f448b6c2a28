"""
Ebookshelf Backend: Repositories
==================================

Persistence for the two aggregates. Each repository is constructed per
request with the request's AsyncSession:

    - UserRepository: the credential store (users table)
    - BookRepository: books with their embedded vocabulary and notes,
      always scoped to the requesting owner
"""

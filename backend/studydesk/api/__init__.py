"""StudyDesk REST API package.

Sub-modules expose FastAPI routers for each area of the dashboard:
- dashboard: page loader (notes, categories, counts)
- notes: note categorization, favorite flag, delete, compare
- categories: category CRUD and ordering
- links: study links, link groups and subgroups
- projects: project list and detail
- realtime: Server-Sent-Events change stream
"""

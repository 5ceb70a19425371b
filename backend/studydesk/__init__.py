"""StudyDesk backend: personal study notes, categories and links."""

__version__ = "0.1.0"

"""
Gemini Pull Request Reviewer

A webhook service that reviews GitHub pull requests with Google Gemini
and posts the review back as a comment on the pull request.
"""

__version__ = "1.0.0"
__author__ = "Gemini PR Reviewer Team"

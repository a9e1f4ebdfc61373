"""
review-providers: one provider contract over five git-hosting APIs.

This package hides the pagination, authentication, rate-limit and error
dialects of GitHub, GitLab, Bitbucket, Azure DevOps and Gitea/Forgejo
behind a single asynchronous ``Provider`` interface, and supplies the retry
policy every backend call is judged by.
"""

__version__ = "1.0.0"

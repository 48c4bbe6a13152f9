# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests running the whole analysis pipeline over a project on disk."""

"""
HTTP surface: job submission and polling, whale listing, deep dive.
"""

"""
Structured conversation events, shared by the API and the speech pipeline.
"""

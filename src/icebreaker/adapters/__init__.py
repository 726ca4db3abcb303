"""
Model adapters for Icebreaker.

Each adapter turns the facilitator/participant prompt into a provider request
and streams back the reply text.
"""

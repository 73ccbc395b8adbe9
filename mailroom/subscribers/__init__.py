"""Read side of the subscription workflow.

Signup and confirmation live elsewhere; this package only answers "who is
confirmed right now" for the publish transaction.
"""

"""
Scenario files for new conversations.

Each scenario defines:
- name: Scenario identifier
- base_context: Seed system instruction for the dialogue model
- description: Free text, not sent to the model
"""

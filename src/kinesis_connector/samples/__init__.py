"""
Sample connector.

- json_pipeline: JSON user records, re-emitted to the output stream
- json_executor: runs it with json.properties and users.txt
"""

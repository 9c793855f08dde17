# /app/utils/metrics.py

from prometheus_client import Counter, Histogram

# This file defines all Prometheus metrics used for application monitoring.
# Centralizing them here makes them easy to find and manage.

# Business Logic Metrics
chat_messages_counter = Counter('chat_messages_total', 'Chat messages processed', ['sender', 'intent'])
recovery_messages_counter = Counter('recovery_messages_total', 'Cart recovery messages recorded', ['stage', 'trigger'])
automation_runs_counter = Counter('automation_runs_total', 'Cart recovery automation runs', ['status'])
ai_requests_counter = Counter('ai_requests_total', 'Total AI requests', ['model', 'status'])
database_operations_counter = Counter('database_operations_total', 'Database operations', ['operation', 'status'])

# Performance Metrics
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])
automation_run_duration = Histogram('automation_run_duration_seconds', 'Duration of a cart recovery automation run')
cache_operations = Counter('cache_operations_total', 'Cache operations', ['operation', 'status'])

"""
Scheduling package.

Components:
- cron.py: five-field cron expressions (parse, match, next fire time)
- scheduler.py: named cron jobs driven by an asyncio timer loop
- jobs.py: the default automation jobs and scheduled-workflow registration
"""

"""
Moodle Tutor

An MCP server that lets an AI assistant query a Moodle course (students,
assignments, quizzes, submissions, grades) and run cohort-level statistics
for adaptive tutoring decisions.
"""

__version__ = "0.1.0"

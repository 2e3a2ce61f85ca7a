"""Attendance session engine.

Turns a check-in photo and a later check-out photo into one consistent daily
attendance record, reconciling the local session cache with the backend's
current-status and history endpoints. Organized by feature modules
(attendance, session) with a thin Flask controller on top.
"""

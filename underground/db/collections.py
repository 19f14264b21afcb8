"""Collection names used across the services."""

USERS = "users"
REFERRALS = "referrals"
REWARDS = "rewards"
EVENTS = "events"
VILLA_BOOKINGS = "villa_bookings"
LOGIN_LOGS = "login_logs"
ADMIN_ACTIONS = "admin_actions"

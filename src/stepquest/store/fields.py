"""Field names of a user document, as written by the mobile client."""

FCM_TOKEN = "fcmToken"
USERNAME = "username"
DISPLAY_NAME = "displayName"
PROFILE_IMAGE_URL = "profileImageUrl"

DAILY_STEPS = "daily_steps"
WEEKLY_STEPS = "weekly_steps"
MONTHLY_GOALS = "monthlyGoals"
GOAL_STEPS = "goalSteps"

COINS = "coins"

# Idempotency markers, one per trigger kind
DAILY_GOAL_COMPLETED_DATE = "dailyGoalCompletedDate"
LAST_DAILY_FACT_DATE = "lastDailyFactDate"
LAST_DAILY_FACT_CATEGORY = "lastDailyFactCategory"
LAST_GOAL_REMINDER_DATE = "lastGoalReminderDate"
LAST_INACTIVITY_DATE = "lastInactivityDate"
LAST_INACTIVITY_STEPS = "lastInactivitySteps"
LAST_INACTIVITY_TIMESTAMP = "lastInactivityTimestamp"
LAST_WEEK_REWARDED = "lastWeekRewarded"

# Removed from the data model; kept only for the cleanup migration
LEGACY_DAILY_STEP_GOAL = "dailyStepGoal"

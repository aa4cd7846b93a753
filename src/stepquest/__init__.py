"""StepQuest backend: step leaderboards, coin rewards and push notifications."""

# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

USERS_COLLECTION = "users"
POINTS_TRANSACTIONS_COLLECTION = "points_transactions"
NOTIFICATIONS_COLLECTION = "notifications"
NOTIFICATION_PREFERENCES_COLLECTION = "notification_preferences"
MISSIONS_COLLECTION = "missions"
PARTICIPATIONS_COLLECTION = "participations"
CHECK_INS_COLLECTION = "check_ins"
CHECK_IN_SETTINGS_COLLECTION = "check_in_settings"
REWARDS_COLLECTION = "rewards"
REDEMPTIONS_COLLECTION = "redemptions"
BRING_A_FRIEND_SESSIONS_COLLECTION = "bring_a_friend_sessions"
FIRST_PURCHASES_COLLECTION = "first_purchases"
AVAILABILITY_BLOCKS_COLLECTION = "creator_availability"
RECURRING_AVAILABILITY_COLLECTION = "creator_recurring_availability"
AVAILABILITY_SETTINGS_COLLECTION = "creator_availability_settings"
BOOKINGS_COLLECTION = "creator_bookings"

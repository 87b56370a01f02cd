# users and usage counters
from .user import User
# per-user content records
from .scenario import Scenario
from .idea import Idea
from .plan import Plan
from .report import Report
from .caption import Caption
from .competitor_analysis import CompetitorAnalysis
# history blobs
from .chat_history import ChatHistory
from .story_history import StoryHistory
# admin side
from .subscription_history import SubscriptionHistory
from .activity_log import ActivityLog
from .broadcast import Broadcast
from .algorithm_news import AlgorithmNews
from .base import Base

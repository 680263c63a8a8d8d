# Importing the tool modules registers their tools on planner.chat.registry.registry
from planner.chat.tools import actions, comments, info, lists, posts, resolvers  # noqa: F401

class GameRuleError(ValueError):
    """Base class for rejected game actions. Routes map these to 4xx."""


class InvalidChallengeType(GameRuleError):
    pass


class InvalidPrediction(GameRuleError):
    pass


class ChallengeLocked(GameRuleError):
    pass


class DuplicateRoundPrediction(GameRuleError):
    pass


class PredictionAlreadySettled(GameRuleError):
    pass


class PredictionNotDue(GameRuleError):
    pass


class RewardAlreadyClaimed(GameRuleError):
    pass


class UnknownUser(LookupError):
    pass

from .rule_engine import RuleInterpreter, find_observation, select_band

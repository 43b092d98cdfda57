"""
Core building blocks shared by all scripts: errors, configuration, constants.
"""

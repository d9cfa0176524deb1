"""Engine components: vocabularies, conditions, actions, listeners and the dispatcher."""

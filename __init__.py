from .cmdgen.command_nodes import CommandGenerator, GrammarSentence, WildcardResolver

NODE_CLASS_MAPPINGS = {
    "CommandGenerator": CommandGenerator,
    "GrammarSentence": GrammarSentence,
    "WildcardResolver": WildcardResolver,
}

NODE_DISPLAY_NAME_MAPPINGS = {
    "CommandGenerator": "Command Generator 🤖",
    "GrammarSentence": "Grammar Sentence 📜",
    "WildcardResolver": "Wildcard Resolver 🎯",
}

def register_nodes(comfy):
    for name, cls in NODE_CLASS_MAPPINGS.items():
        display_name = NODE_DISPLAY_NAME_MAPPINGS.get(name, name)
        comfy.register_node(cls, display_name=display_name)

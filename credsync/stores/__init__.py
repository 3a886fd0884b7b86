from .jenkins import Jenkins
from .memory import Memory

SUPPORTED_STORES = {
    "jenkins": Jenkins,
    "memory": Memory,
}

def get_store(name, **config):
    store_class = SUPPORTED_STORES.get(name.lower())
    if not store_class:
        raise ValueError(f"Unsupported credential store: {name}")
    return store_class(**config)

# Services layer: cart mutations, shipping state, checkout submission

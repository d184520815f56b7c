import os

import setuptools

setuptools.setup(
    name="ircrelay",
    version="0.1.0",
    description="A trio relay that bridges one channel across several IRC networks.",
    keywords="irc relay bridge async trio",
    python_requires=">=3.11",
    install_requires=open(os.path.join(os.path.dirname(__file__), "requirements.txt"))
    .read()
    .strip()
    .split("\n"),
    extras_require={"test": ["pytest", "pytest-trio"]},
    packages=["ircrelay"],
    entry_points={"console_scripts": ["ircrelay = ircrelay.cli:main"]},
    classifiers=[
        "Framework :: Trio",
        "Topic :: Communications :: Chat :: Internet Relay Chat",
        "Topic :: System :: Networking",
    ],
)

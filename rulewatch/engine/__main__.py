from rulewatch.engine.cli import main

main()

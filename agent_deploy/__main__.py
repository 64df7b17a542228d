from agent_deploy.cli import main

main()
